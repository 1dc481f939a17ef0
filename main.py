import sys
import os
import time
import signal
import argparse

# Inject the citation-tracker directory into sys.path
# This ensures the scholar, history and refresh packages are resolvable from a checkout.
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), "citation-tracker"))

from scholar.core import HISTORY_FILE, SETTINGS_FILE, RETENTION_DAYS, GROWTH_WINDOW_DAYS, logger
from scholar.errors import CitationError
from scholar.models import Profile, parse_profile_id
from history.json_storage import JsonObservationStore
from refresh.listener import LoggingListener
from refresh.models import RefreshInterval
from refresh.orchestrator import RefreshOrchestrator
from refresh.scheduler import RefreshScheduler
from refresh.settings import SettingsStore


class TrackerSession:
    """
    Wires the tracker once at process start: settings, history store, orchestrator.
    Every collaborator receives its dependencies explicitly; nothing is global.
    """
    def __init__(self, history_file=HISTORY_FILE, settings_file=SETTINGS_FILE, listener=None):
        self.settings = SettingsStore(settings_file)
        self.store = JsonObservationStore(history_file)
        self.orchestrator = RefreshOrchestrator(
            self.store,
            self.settings,
            listener=listener or LoggingListener(),
        )

    def log_storage_status(self):
        info = self.store.storage_info()
        logger.info(
            f"[SYSTEM] Storage status: {info.record_count} records, file exists: {info.file_exists} ({info.file_path})",
            extra={'context': 'main'},
        )
        if info.record_count:
            ids = sorted({o.profile_id for o in self.store.all_observations()})
            logger.info(f"[SYSTEM] Historical data available for profile IDs: {ids}", extra={'context': 'main'})

    # --- commands ---

    def add(self, value, name=None, sort_order=None):
        profile_id = parse_profile_id(value)
        order = sort_order if sort_order is not None else len(self.settings.profiles)
        self.settings.add_profile(Profile(id=profile_id, name=name or profile_id, sort_order=order))
        print(f"Tracking {name or profile_id} ({profile_id})")

    def remove(self, profile_id):
        if not self.settings.remove_profile(profile_id):
            print(f"Profile {profile_id} is not tracked")
            return 1
        print(f"Stopped tracking {profile_id}")
        return 0

    def set_enabled(self, profile_id, enabled):
        profile = self.settings.get_profile(profile_id)
        if profile is None:
            print(f"Profile {profile_id} is not tracked")
            return 1
        profile.enabled = enabled
        self.settings.update_profile(profile)
        return 0

    def list_profiles(self):
        for profile in sorted(self.settings.profiles, key=lambda p: p.sort_order):
            state = "enabled" if profile.enabled else "disabled"
            print(f"{profile.sort_order:>3}  {profile.id:<14} {profile.name:<30} {state}")
        print(f"Refresh interval: {self.settings.refresh_interval.display_name}")
        if self.settings.last_update_time:
            print(f"Last update:      {self.settings.last_update_time.isoformat()}")

    def show(self):
        results = self.orchestrator.current_results()
        if not results:
            print("No historical data found")
            return
        for result in results.values():
            growth = "n/a" if result.recent_growth is None else f"{result.recent_growth:+d}"
            h_index = "-" if result.h_index is None else result.h_index
            print(
                f"{result.name:<30} citations {result.citation_count:>7}  h-index {h_index:>4}  "
                f"{GROWTH_WINDOW_DAYS}d growth {growth:>6}  ({result.observed_at:%Y-%m-%d %H:%M})"
            )

    def history(self, profile_id, days):
        for timestamp, count in self.store.trend(profile_id, days):
            print(f"{timestamp.isoformat()}  {count}")

    def refresh(self):
        results = self.orchestrator.run_cycle()
        return 0 if results else 1

    def set_interval(self, value):
        interval = RefreshInterval(value)
        self.settings.set_refresh_interval(interval)
        print(f"Refresh interval: {interval.display_name}")

    def sync_interval(self, scheduler):
        """Re-reads saved settings and re-arms the scheduler when the interval changed."""
        self.settings.load()
        seconds = self.settings.refresh_interval.seconds
        if seconds == scheduler.interval_seconds:
            return False
        scheduler.set_interval(seconds)
        return True

    def install_trigger(self, scheduler):
        """SIGUSR1 queues a manual refresh on the running scheduler."""
        if not hasattr(signal, "SIGUSR1"):
            return False
        signal.signal(signal.SIGUSR1, lambda signum, frame: scheduler.trigger_now())
        logger.info(f"[SYSTEM] Send SIGUSR1 to pid {os.getpid()} to refresh now", extra={'context': 'main'})
        return True

    def watch(self, interval_seconds, run_immediately=True):
        scheduler = RefreshScheduler(self.orchestrator, interval_seconds, run_immediately=run_immediately)
        scheduler.start()
        self.install_trigger(scheduler)
        try:
            while scheduler.is_alive():
                time.sleep(1)
                self.sync_interval(scheduler)
        except KeyboardInterrupt:
            logger.info("[SYSTEM] Interrupted; waiting for the running cycle to finish", extra={'context': 'main'})
        finally:
            scheduler.stop()
        return 0

    def prune(self, days):
        removed = self.store.prune(days)
        print(f"Removed {removed} records older than {days} days")


def build_parser():
    parser = argparse.ArgumentParser(description="Citation Tracker CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Track a profile (id or profile URL)")
    add.add_argument("profile")
    add.add_argument("--name")
    add.add_argument("--order", type=int)

    remove = sub.add_parser("remove", help="Stop tracking a profile")
    remove.add_argument("profile_id")

    enable = sub.add_parser("enable", help="Enable a tracked profile")
    enable.add_argument("profile_id")
    disable = sub.add_parser("disable", help="Disable a tracked profile")
    disable.add_argument("profile_id")

    sub.add_parser("list", help="List tracked profiles")
    sub.add_parser("show", help="Show stored metrics without fetching")
    sub.add_parser("refresh", help="Run one refresh cycle now")

    history = sub.add_parser("history", help="Print the citation trend of a profile")
    history.add_argument("profile_id")
    history.add_argument("--days", type=int, default=GROWTH_WINDOW_DAYS)

    watch = sub.add_parser("watch", help="Refresh periodically until interrupted")
    watch.add_argument("--interval", choices=[i.value for i in RefreshInterval], help="Overrides the saved interval")
    watch.add_argument("--no-initial", action="store_true", help="Wait one interval before the first cycle")

    interval = sub.add_parser("interval", help="Save the refresh interval; a running watch picks it up")
    interval.add_argument("value", choices=[i.value for i in RefreshInterval])

    prune = sub.add_parser("prune", help="Delete old observations")
    prune.add_argument("--days", type=int, default=RETENTION_DAYS)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    session = TrackerSession()
    session.log_storage_status()

    try:
        if args.command == "add":
            session.add(args.profile, name=args.name, sort_order=args.order)
        elif args.command == "remove":
            return session.remove(args.profile_id)
        elif args.command in ("enable", "disable"):
            return session.set_enabled(args.profile_id, args.command == "enable")
        elif args.command == "list":
            session.list_profiles()
        elif args.command == "show":
            session.show()
        elif args.command == "history":
            session.history(args.profile_id, args.days)
        elif args.command == "refresh":
            return session.refresh()
        elif args.command == "watch":
            if args.interval:
                session.settings.set_refresh_interval(RefreshInterval(args.interval))
            return session.watch(session.settings.refresh_interval.seconds, run_immediately=not args.no_initial)
        elif args.command == "interval":
            session.set_interval(args.value)
        elif args.command == "prune":
            session.prune(args.days)
    except (CitationError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

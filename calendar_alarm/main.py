"""Command line entry point"""
import argparse
import sys
import threading

from loguru import logger

from .config import settings
from .scheduler import StoreUnavailable
from .scheduler.schedule import format_ms, offset_to_human
from .services import AlarmService

# How often the daemon checks alarm.yaml for hand edits
CONFIG_POLL_SECONDS = 30


def setup_logging(level: str):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "{extra[module]} - <level>{message}</level>",
    )
    logger.configure(extra={"module": "main"})


def print_status(service: AlarmService):
    state = service.state()
    print(f"Enabled:   {'yes' if state.enabled else 'no'}")
    print(f"Offset:    {offset_to_human(state.offset_minutes)} ({state.offset_minutes} minutes)")
    last = format_ms(state.last_alarm_fired_at_ms) if state.last_alarm_fired_at_ms else "never"
    print(f"Last ring: {last}")
    alarm = state.next_alarm()
    if alarm:
        print(f"Next alarm: {format_ms(alarm.alarm_time_ms)} for '{alarm.title}' "
              f"at {format_ms(alarm.event_time_ms)}")
    else:
        print("Next alarm: none")


def run_daemon(service: AlarmService):
    """Start the service and block until interrupted"""
    stop = threading.Event()
    service.start()
    try:
        while not stop.wait(CONFIG_POLL_SECONDS):
            try:
                service.reload_if_changed()
            except StoreUnavailable as e:
                logger.error(f"Config reload failed: {e}")
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calendar-alarm",
        description="Ring an alarm before the first calendar event of the day",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Run the alarm daemon")
    sub.add_parser("status", help="Show settings and the next alarm")
    sub.add_parser("enable", help="Enable the alarm")
    sub.add_parser("disable", help="Disable the alarm")
    offset = sub.add_parser("offset", help="Set how many minutes before the event to ring")
    offset.add_argument("minutes", type=int)
    sub.add_parser("check", help="Search the calendar now and show the result")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings.log_level)

    service = AlarmService()
    try:
        if args.command == "run":
            run_daemon(service)
            return 0
        if args.command == "enable":
            service.set_enabled(True)
        elif args.command == "disable":
            service.set_enabled(False)
        elif args.command == "offset":
            service.set_offset_in_minutes(args.minutes)
        elif args.command == "check":
            service.check()
        print_status(service)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except StoreUnavailable as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

import sys
import traceback

from lidguard.dev.run_app import main as run_app


def main():
    # Frozen-executable entrypoint: keep the console open on a startup error.
    try:
        run_app(sys.argv[1:])
    except Exception:
        traceback.print_exc()
        if sys.stdin is not None and sys.stdin.isatty():
            input("\nPress Enter to exit...")
        sys.exit(1)


if __name__ == "__main__":
    main()

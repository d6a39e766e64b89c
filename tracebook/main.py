"""Entry point: oneshot."""

import sys

USAGE = "Usage: python -m tracebook.main oneshot <session.json> [query...] [--all]"


def main():
    mode = "oneshot"
    if len(sys.argv) > 1:
        mode = sys.argv[1].lower()

    if mode == "oneshot":
        from tracebook.core.config import config
        from tracebook.interfaces.oneshot import main as run_oneshot_main

        errors = config.validate()
        if errors:
            for error in errors:
                print(f"Config error: {error}")
            sys.exit(2)

        args = sys.argv[2:]
        show_all = "--all" in args
        positional = [arg for arg in args if arg != "--all"]
        if not positional:
            print(USAGE)
            sys.exit(2)
        session_file, query_parts = positional[0], positional[1:]
        sys.exit(run_oneshot_main(session_file, " ".join(query_parts).strip(), show_all=show_all))

    else:
        print(f"Unknown mode: {mode}")
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()

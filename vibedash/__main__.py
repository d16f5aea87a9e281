"""Entry point for `python -m vibedash`."""

import sys


def _parse_cmd(text):
    """Parse a single input and print the result in test_cases.txt format."""
    from vibedash.parser import parse

    intent = parse(text)
    print(f"> {text}")
    print(f"action: {intent.action}")
    print(f"subject: {intent.subject}")
    for key, val in intent.params.to_dict().items():
        print(f"{key}: {val}")


if __name__ == "__main__" or not sys.argv[0]:
    if len(sys.argv) >= 3 and sys.argv[1] == "-parse":
        _parse_cmd(" ".join(sys.argv[2:]))
    else:
        from vibedash.main import main
        main()

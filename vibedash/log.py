"""Console and request logging.

log() is for progress and warnings on the console. log_request() appends a
compact two-line entry per handled utterance to vibedash.log, which lives
next to the vibedash package directory.
"""

import os
from datetime import datetime

LOG_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "vibedash.log")


def log(msg):
    print(msg, flush=True)


def log_request(text, intent, outcome, source="[text]", path=None):
    """Append one utterance and what became of it to the log file."""
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    if intent is None:
        parse_line = f"  -> none, {outcome}"
    else:
        parts = [intent.action, f"subject={intent.subject!r}"]
        for k, v in intent.params.to_dict().items():
            parts.append(f"{k}={v!r}")
        parts.append(outcome)
        parse_line = f"  -> {', '.join(parts)}"
    try:
        with open(path or LOG_PATH, "a") as f:
            f.write(f"{ts} {source}  {text}\n{parse_line}\n")
    except OSError:
        pass

import re
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_STEP_MINUTES = 10

_TOTAL_TIME = re.compile(r"TOTAL_TIME:\s*(\d+)", re.IGNORECASE)
_NUMBERED = re.compile(r"^\d+[.)]")
_NUMBER_PREFIX = re.compile(r"^\d+[.)]\s*")
_TIMED_STEP = re.compile(r"^\d+[.)]\s*(.+?)\s*\((\d+)\s*(?:min|minutes?)\)", re.IGNORECASE)
_HAS_ESTIMATE = re.compile(r"\(\d+\s*(?:min|minutes?)\)", re.IGNORECASE)

def parse_breakdown(text: str) -> Tuple[List[str], Optional[int]]:
    """
    Split a model breakdown into numbered steps and the total time estimate.

    Every step ends with "(N min)"; steps the model left unestimated get
    DEFAULT_STEP_MINUTES.
    """
    total_match = _TOTAL_TIME.search(text or "")
    total_time = int(total_match.group(1)) if total_match else None

    steps = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not _NUMBERED.match(line):
            continue
        timed = _TIMED_STEP.match(line)
        if timed:
            steps.append(f"{timed.group(1).strip()} ({timed.group(2)} min)")
            continue
        step = _NUMBER_PREFIX.sub("", line).strip()
        if not step:
            continue
        if not _HAS_ESTIMATE.search(step):
            step += f" ({DEFAULT_STEP_MINUTES} min)"
        steps.append(step)

    return steps, total_time

async def break_down_task(task: str, chat_client) -> Dict[str, Any]:
    text = await chat_client.task_breakdown(task)
    steps, total_time = parse_breakdown(text)
    return {"steps": steps, "total_time": total_time}

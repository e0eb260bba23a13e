from typing import List, Optional


def names(events) -> List[str]:
    return [event.name.value for event in events]


def find(events, name: str, to: Optional[str] = None):
    return [e for e in events if e.name.value == name and (to is None or e.to == to)]

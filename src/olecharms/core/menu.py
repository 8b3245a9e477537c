"""State machine behind the interactive ``config`` menu.

The menu has three views. ``main`` lists the features and the cleaner
schedule, ``feature`` offers enable/disable for one feature and ``schedule``
picks between the shell hook and cron. :func:`transition` maps the current
state and one line of user input to the next state plus an :class:`Action`
for the caller to carry out; it never reads input or prints anything itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .features import FEATURES, SCHEDULE_KEY, Feature
from .settings import ConfigRecord

FEATURE_ORDER = list(Feature)
SCHEDULE_CHOICE = str(len(FEATURE_ORDER) + 1)


class View(str, Enum):
    MAIN = "main"
    FEATURE = "feature"
    SCHEDULE = "schedule"


class ActionKind(str, Enum):
    NONE = "none"
    ENABLE = "enable"
    DISABLE = "disable"
    SCHEDULE = "schedule"
    INVALID = "invalid"
    QUIT = "quit"


@dataclass(frozen=True)
class MenuState:
    view: View = View.MAIN
    feature: Optional[Feature] = None


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    feature: Optional[Feature] = None
    value: Optional[str] = None


def _on_off(flag: bool) -> str:
    return "on" if flag else "off"


def options(state: MenuState, record: ConfigRecord) -> List[Tuple[str, str]]:
    """Return the ``(key, label)`` choices for the current view."""
    if state.view is View.FEATURE and state.feature is not None:
        return [("e", "Enable"), ("d", "Disable"), ("b", "Back")]
    if state.view is View.SCHEDULE:
        return [
            ("s", "Run cleaners from shell startup"),
            ("c", "Run cleaners from cron"),
            ("b", "Back"),
        ]

    choices = [
        (str(index), f"{FEATURES[feature].label} [{_on_off(record.get_bool(feature.key))}]")
        for index, feature in enumerate(FEATURE_ORDER, 1)
    ]
    choices.append((SCHEDULE_CHOICE, f"Cleaner schedule [{record.get(SCHEDULE_KEY, 'shell')}]"))
    choices.append(("q", "Quit"))
    return choices


def title(state: MenuState) -> str:
    if state.view is View.FEATURE and state.feature is not None:
        return FEATURES[state.feature].label
    if state.view is View.SCHEDULE:
        return "Cleaner schedule"
    return "olecharms features"


def transition(state: MenuState, choice: str) -> Tuple[MenuState, Action]:
    """Apply one line of input to ``state``.

    Unknown input keeps the state and returns an ``invalid`` action.
    """
    choice = choice.strip().lower()
    main = MenuState()

    if state.view is View.MAIN:
        if choice == "q":
            return state, Action(ActionKind.QUIT)
        if choice == SCHEDULE_CHOICE:
            return MenuState(View.SCHEDULE), Action(ActionKind.NONE)
        if choice.isdigit() and 1 <= int(choice) <= len(FEATURE_ORDER):
            feature = FEATURE_ORDER[int(choice) - 1]
            return MenuState(View.FEATURE, feature), Action(ActionKind.NONE)
        return state, Action(ActionKind.INVALID, value=choice)

    if state.view is View.FEATURE and state.feature is not None:
        if choice == "e":
            return main, Action(ActionKind.ENABLE, feature=state.feature)
        if choice == "d":
            return main, Action(ActionKind.DISABLE, feature=state.feature)
        if choice == "b":
            return main, Action(ActionKind.NONE)
        return state, Action(ActionKind.INVALID, value=choice)

    if state.view is View.SCHEDULE:
        if choice == "s":
            return main, Action(ActionKind.SCHEDULE, value="shell")
        if choice == "c":
            return main, Action(ActionKind.SCHEDULE, value="cron")
        if choice == "b":
            return main, Action(ActionKind.NONE)
        return state, Action(ActionKind.INVALID, value=choice)

    return main, Action(ActionKind.NONE)

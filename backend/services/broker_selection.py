"""Broker-selection flow as an explicit finite-state machine.

The "add asset" chooser walks asset type -> link method -> broker category
-> broker. Every screen except the first can step back to its
predecessor. Choosing a broker ends the flow in ``LINK_REQUESTED``; the
caller then asks the connect endpoint for a portal URL and navigates away.

    flow = start()
    flow = transition(flow, AssetTypeChosen("stocks"))
    flow = transition(flow, LinkMethodChosen("link"))
    flow = transition(flow, CategoryChosen("traditional"))
    flow = transition(flow, BrokerChosen("robinhood"))
    assert flow.state is SelectionState.LINK_REQUESTED
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

from services import broker_catalog


class SelectionState(str, Enum):
    """Screens of the chooser."""

    CHOOSE_ASSET_TYPE = "choose_asset_type"
    CHOOSE_LINK_METHOD = "choose_link_method"
    CHOOSE_BROKER_CATEGORY = "choose_broker_category"
    CHOOSE_BROKER = "choose_broker"
    MANUAL_ENTRY = "manual_entry"
    LINK_REQUESTED = "link_requested"


@dataclass(frozen=True)
class AssetTypeChosen:
    asset_type: str


@dataclass(frozen=True)
class LinkMethodChosen:
    method: str  # "link" or "manual"


@dataclass(frozen=True)
class CategoryChosen:
    category: str


@dataclass(frozen=True)
class BrokerChosen:
    broker_id: str


@dataclass(frozen=True)
class Back:
    pass


SelectionEvent = Union[AssetTypeChosen, LinkMethodChosen, CategoryChosen, BrokerChosen, Back]


class InvalidTransition(ValueError):
    """The event is not accepted in the flow's current state."""

    def __init__(self, state: SelectionState, event: SelectionEvent, reason: str = ""):
        self.state = state
        self.event = event
        message = f"{type(event).__name__} not allowed in {state.value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


@dataclass(frozen=True)
class SelectionFlow:
    """Immutable snapshot of the chooser."""

    state: SelectionState = SelectionState.CHOOSE_ASSET_TYPE
    asset_type: str | None = None
    category: str | None = None
    broker_id: str | None = None
    manual_form: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state is SelectionState.LINK_REQUESTED


def start() -> SelectionFlow:
    return SelectionFlow()


def transition(flow: SelectionFlow, event: SelectionEvent) -> SelectionFlow:
    """Apply ``event`` and return the next flow.

    Raises:
        InvalidTransition: If the event does not apply to the current state
            or names an unknown asset type, method, category or broker.
    """
    state = flow.state

    if state is SelectionState.LINK_REQUESTED:
        raise InvalidTransition(state, event, "flow is complete")

    if isinstance(event, Back):
        return _back(flow, event)

    if state is SelectionState.CHOOSE_ASSET_TYPE and isinstance(event, AssetTypeChosen):
        asset_type = broker_catalog.get_asset_type(event.asset_type)
        if asset_type is None:
            raise InvalidTransition(state, event, f"unknown asset type {event.asset_type!r}")
        if asset_type.linkable:
            return replace(flow, state=SelectionState.CHOOSE_LINK_METHOD, asset_type=asset_type.id)
        return replace(
            flow,
            state=SelectionState.MANUAL_ENTRY,
            asset_type=asset_type.id,
            manual_form=asset_type.manual_form,
        )

    if state is SelectionState.CHOOSE_LINK_METHOD and isinstance(event, LinkMethodChosen):
        if event.method == "link":
            return replace(flow, state=SelectionState.CHOOSE_BROKER_CATEGORY)
        if event.method == "manual":
            asset_type = broker_catalog.get_asset_type(flow.asset_type)
            return replace(
                flow, state=SelectionState.MANUAL_ENTRY, manual_form=asset_type.manual_form
            )
        raise InvalidTransition(state, event, f"unknown method {event.method!r}")

    if state is SelectionState.CHOOSE_BROKER_CATEGORY and isinstance(event, CategoryChosen):
        if broker_catalog.get_category(event.category) is None:
            raise InvalidTransition(state, event, f"unknown category {event.category!r}")
        return replace(flow, state=SelectionState.CHOOSE_BROKER, category=event.category)

    if state is SelectionState.CHOOSE_BROKER and isinstance(event, BrokerChosen):
        if broker_catalog.find_broker(flow.category, event.broker_id) is None:
            raise InvalidTransition(
                state, event, f"{event.broker_id!r} is not in category {flow.category!r}"
            )
        return replace(flow, state=SelectionState.LINK_REQUESTED, broker_id=event.broker_id)

    raise InvalidTransition(state, event)


def _back(flow: SelectionFlow, event: Back) -> SelectionFlow:
    state = flow.state
    if state is SelectionState.CHOOSE_LINK_METHOD:
        return SelectionFlow()
    if state is SelectionState.CHOOSE_BROKER_CATEGORY:
        return replace(flow, state=SelectionState.CHOOSE_LINK_METHOD)
    if state is SelectionState.CHOOSE_BROKER:
        return replace(flow, state=SelectionState.CHOOSE_BROKER_CATEGORY, category=None)
    if state is SelectionState.MANUAL_ENTRY:
        asset_type = broker_catalog.get_asset_type(flow.asset_type)
        if asset_type is not None and asset_type.linkable:
            return replace(flow, state=SelectionState.CHOOSE_LINK_METHOD, manual_form=None)
        return SelectionFlow()
    raise InvalidTransition(state, event, "no previous screen")

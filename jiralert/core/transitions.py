import logging

from jiralert.core.errors import ConfigurationError
from jiralert.integrations import TicketingClient

logger = logging.getLogger(__name__)


def do_transition(client: TicketingClient, issue_key: str, state: str) -> None:
    """Move an issue through the workflow transition named ``state``.

    Jira only lists the transitions the configured user may take from the
    issue's current status, so a missing name means either a workflow or a
    permission mismatch in the configuration.

    Raises:
        TicketingError: If listing or applying the transition fails.
        ConfigurationError: If no available transition has that name.
    """
    transitions = client.get_transitions(issue_key)

    for transition in transitions:
        if transition.name == state:
            logger.debug(f"Transition {state} on {issue_key} (transition_id={transition.id})")
            client.do_transition(issue_key, transition.id)
            logger.debug(f"Issue {issue_key} transitioned to {state}")
            return

    available = ", ".join(t.name for t in transitions) or "none"
    raise ConfigurationError(
        f"JIRA state {state!r} does not exist or no transition possible for {issue_key} "
        f"(available: {available})"
    )

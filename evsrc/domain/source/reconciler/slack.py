from evsrc.domain.source.model.source import SlackSource, SourceKind
from evsrc.domain.source.model.workload import EnvVar
from evsrc.domain.source.reconciler.base import SourceReconciler
from evsrc.domain.source.reconciler.resources import secret_env, value_env

ADAPTER_NAME = "slacksource"


class SlackSourceReconciler(SourceReconciler[SlackSource]):
    """Runs a Deployment adapter for the Slack Events API.

    The adapter has no address of its own; Slack reaches it through an
    ingress managed outside this controller.
    """

    kind = SourceKind.SLACK

    def app_env(self, source: SlackSource) -> list[EnvVar]:
        return [
            *secret_env("SLACK_SIGNING_SECRET", source.spec.signing_secret),
            *value_env("SLACK_APP_ID", source.spec.app_id),
        ]

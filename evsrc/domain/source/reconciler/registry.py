from typing import NewType

from evsrc.domain.source.model.source import SourceKind
from evsrc.domain.source.reconciler.base import SourceReconciler

# One reconciler per supported kind.
SourceReconcilers = NewType("SourceReconcilers", dict[SourceKind, SourceReconciler])

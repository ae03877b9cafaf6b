"""Global test fixtures."""

import os
import tempfile

# Keep Config from deriving paths under the real home directory.
# This must happen at module load time, not in a fixture
os.environ.setdefault("EVSRC_DATA_DIR", tempfile.mkdtemp(prefix="evsrc-tests-"))

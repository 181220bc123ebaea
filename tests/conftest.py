import os
import tempfile

# tsw.common.setup builds its data folders at import time, keep them out of the real home directory
os.environ.setdefault("TSW_DATA_DIR", tempfile.mkdtemp(prefix="tsw-tests-"))

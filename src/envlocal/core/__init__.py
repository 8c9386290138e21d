"""
envlocal core modules.

Includes:
- address: File addressing by stage, region and function
- envfile: Line-oriented key=value file format
- store: Reading and writing environment files
- remote: Lambda configuration lookup
- syncer: Capture and inject flows
- config: serverless.yml loading
- masking: Secret detection for display
- reporting: Progress output
"""

from . import address
from . import envfile
from . import store
from . import remote
from . import syncer
from . import config
from . import masking
from . import reporting

__all__ = [
    "address",
    "envfile",
    "store",
    "remote",
    "syncer",
    "config",
    "masking",
    "reporting",
]

"""autostrm core package.

The package turns remote or local media files into a media-server library of
``.strm`` stream references and ``.nfo`` metadata sidecars:

- **config**: YAML configuration, naming-rule merging and the immutable ``AppConfig``
- **discern**: Naming-rule evaluation and candidate ranking
- **resolver**: Metadata lookup and output writing for a single candidate
- **processor**: Task orchestration over sources, providers and outputs
- **sources** / **metadata** / **outputs**: Collaborators selected by ``type``

The main entry point for processing is the ``Processor`` class.
"""

from .processor import Processor
from .version import __version__

__all__ = [
    "__version__",
    "Processor",
]

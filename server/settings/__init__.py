"""Main settings file, assembled from components.

Components are plain python modules included in order, so later
components can read and override values defined by earlier ones.
"""

from split_settings.tools import include

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/uploads.py',
)

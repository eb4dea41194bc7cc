"""FTB Quests translator — shared patterns and key whitelists."""

import re

__version__ = "0.3.0"

# Keys whose string (or string-array) values are player-facing text in
# quest chapter files.
QUEST_TRANSLATABLE_KEYS = ("title", "description", "subtitle")

# Dotted lowercase identifier with 3+ segments, e.g. ftb.shop.notify.guidance
VARIABLE_REFERENCE_RE = re.compile(r'^[a-z][a-z0-9_]*(\.[a-z0-9_]+){2,}$')

# Lang file keys: quest.<id>.title, quest.<id>.quest_desc, task.<id>.title
LANG_KEY_RE = re.compile(r'^(?:quest\..+\.(?:title|quest_desc)|task\..+\.title)$')

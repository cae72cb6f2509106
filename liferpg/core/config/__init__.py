"""
Configuration subsystem for LifeRPG.

Static configuration is loaded from environment variables (with ``.env``
support) when this package is first imported.

```python
from liferpg.core.config import Config

db_url = Config.DATABASE_URL
if Config.is_production():
    ...
```
"""

from liferpg.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]

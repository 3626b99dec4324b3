"""Allow ``python -m issue_crawler``."""

from __future__ import annotations

from issue_crawler.runtime import main

raise SystemExit(main())

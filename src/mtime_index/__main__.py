from mtime_index.cli import main

raise SystemExit(main())

from stream2df.cli import main

raise SystemExit(main())

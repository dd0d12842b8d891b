from tinyfn.tinyfn_cli import main

raise SystemExit(main())

"""Allow ``python -m hpgen``."""

from hpgen.main import main

if __name__ == "__main__":
    raise SystemExit(main())

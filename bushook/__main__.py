# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

from bushook.main import main

if __name__ == "__main__":
    main()

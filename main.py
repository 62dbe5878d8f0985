from linux_server_mcp.__main__ import main

if __name__ == "__main__":
    raise SystemExit(main())

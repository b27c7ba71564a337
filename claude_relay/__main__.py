from claude_relay.cli import main

main()

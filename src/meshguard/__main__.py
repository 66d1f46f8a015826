from meshguard.cli.main import main

main()

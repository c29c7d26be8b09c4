from versionmark.cli import main

main()

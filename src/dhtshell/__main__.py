from dhtshell.cli import main

main()

from archgate.cli import main

main()

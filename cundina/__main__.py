from cundina.cli import main

main()

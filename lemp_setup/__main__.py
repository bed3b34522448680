from lemp_setup.cli import main

main()

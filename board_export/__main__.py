from board_export.cli import main

main()

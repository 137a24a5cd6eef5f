from chat_widget.cli import main

main()

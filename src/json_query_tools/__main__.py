from json_query_tools.cli import main

main()

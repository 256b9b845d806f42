from kdeploy.cli.app import main

main()

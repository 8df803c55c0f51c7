from github_ci.cli import main

main()

from upcrelay.app import main

main()

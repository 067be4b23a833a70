from shiftstate.app import main

main()

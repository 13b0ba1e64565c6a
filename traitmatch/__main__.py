from traitmatch.analysis import main

main()

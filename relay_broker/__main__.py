from relay_broker.main import main

main()

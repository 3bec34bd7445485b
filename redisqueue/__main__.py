from redisqueue.main import main

main()

from elec_downloader.main import main

main()

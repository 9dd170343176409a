from nvenc_driver_setup.cli import main

main()

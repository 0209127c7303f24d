from forecast_engine.forecast_job import main

main()

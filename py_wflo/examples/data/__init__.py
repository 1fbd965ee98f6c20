import os
example_data_path = os.path.dirname(__file__) + '/'

__title__ = "tflib"
__description__ = "Shared building blocks for terraform providers written in python."
__author__ = "tf-provider-aws contributors"
__license__ = "Apache 2.0"
__version__ = "0.3.0"

from mangum import Mangum

from pipredict.api import app

handler = Mangum(app)

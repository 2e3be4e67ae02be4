from .background import BackgroundTasks
from .box_service import BoxService
from .rate_service import RateService
from .rate_source_chain import RateSourceChain
from .sadaqah_service import SadaqahService

__all__ = ['BackgroundTasks', 'BoxService', 'RateService', 'RateSourceChain', 'SadaqahService']

"""GestureFlow - hand gesture recognition driving presentation and pointer actions."""

__version__ = "0.1.0"

from gestureflow.gestures import GestureLabel, HandObservation, HandPosition
from gestureflow.classifier import LandmarkClassifier, Classification
from gestureflow.motion import SwipeTracker
from gestureflow.confirmation import GestureConfirmer
from gestureflow.pointer import PointerThrottle
from gestureflow.messages import GestureMessage, PointerMessage, encode_message, decode_message
from gestureflow.pipeline import GesturePipeline, FrameResult, RecognitionLoop
from gestureflow.transport import MessageTransport
from gestureflow.actions import TargetAction, ActionOutcome, ActionRequest, ActionResult
from gestureflow.executors import ExecutorChain
from gestureflow.dispatcher import ActionDispatcher
from gestureflow.config import GestureFlowConfig, load_config
from gestureflow.metrics import MetricsCollector

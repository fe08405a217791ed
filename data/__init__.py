"""
Data package for bayesact.

This package provides loading, joint preparation and simulation of policy
and claim data.
"""

from data.data_loader import DataLoader
from data.data_preparation import JointDataPreparation, build_joint_data, split_joint_data
from data.simulation import generate_portfolio

__all__ = ['DataLoader', 'JointDataPreparation', 'build_joint_data', 'split_joint_data',
           'generate_portfolio']

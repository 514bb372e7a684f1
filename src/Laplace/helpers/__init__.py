"""Worker scripts launched under mpiexec."""
